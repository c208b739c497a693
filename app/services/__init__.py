"""Cross-cutting services shared by the domains"""
