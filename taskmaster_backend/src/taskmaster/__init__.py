"""
TaskMaster backend package.

Task management REST API with productivity analytics. The FastAPI app lives
in ``taskmaster.main``.
"""

__version__ = "0.1.0"
