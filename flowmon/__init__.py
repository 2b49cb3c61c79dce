"""USDT flow monitor package.

Samples a single token balance on a fixed cadence, keeps a bounded sliding
history on disk, and reports how much the balance moved over the last
10 minutes, hour and day, including an hourly flow rate.
"""

__all__ = [
    "config",
    "core",
    "data",
    "web",
    "utils",
]
