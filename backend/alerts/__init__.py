"""Bank-alert email ingestion.

This package contains:
- Bank-specific email parsers and the parser registry
- Dispatch of a message to the parser that claims it
- The per-message idempotent processing pipeline
- Per-source sync cycles with checkpointing and status tracking
- Structured logging and error tracking for the pipeline
"""
