"""
Utility modules for DisTrack
"""
