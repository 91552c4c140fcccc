"""
trainerly: workout history, Adjusted Volume scoring and a cache-first
coach API client.
"""

__version__ = "0.1.0"
