"""
TowDesk backend application package
"""
