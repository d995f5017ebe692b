"""
FlightClub - scheduled task engine.

Package structure:
- core: Config, logging, shared result types
- tasks: Task model, stores, executor registry, dispatcher, scheduler loop
- executors: Concrete task executors (reservation, notification)
- security: Token redaction helpers
"""

__version__ = "0.1.0"
