"""
Domain Services
"""
