"""Storage - domain models and the account store"""
