"""Pure domain rules: error taxonomy, session and credential models, operation state machine."""
