"""
Career Pilot: journey orchestration for the Sigma career agent.

Aggregates a user's persisted career artifacts, derives the staged roadmap
(short / mid / long term) and runs the generate-and-persist action behind
each roadmap step.
"""

__version__ = "1.0.0"
