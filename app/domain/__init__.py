"""Domain packages - one per bounded context"""
