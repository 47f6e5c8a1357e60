"""
Terminal display of the current poll.
"""
