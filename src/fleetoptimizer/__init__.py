"""Fleet Optimizer - cost-optimal node pool recommendations"""

__version__ = "0.1.0"
