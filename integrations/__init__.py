"""
External notification integrations.
"""
