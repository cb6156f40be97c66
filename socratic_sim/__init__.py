"""
Socratic Simulation Service

Builds immutable simulation blueprints from professor scenarios and runs
student conversations against them with a Director and an Actor agent
coordinating through a shared blackboard.
"""

__version__ = "1.0.0"
