"""
Domain services: ticket lifecycle, moderation actions and reporting
"""
