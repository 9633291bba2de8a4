"""
Standalone WebSocket server for the DisTrack document store
"""
