"""Request orchestration services: credentials, sessions, gateway, polling and cases."""
