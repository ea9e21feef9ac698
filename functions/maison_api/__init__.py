"""
FastAPI service for residential construction projects: budgets, schedules,
photos and documents, and AI assistance.
"""
