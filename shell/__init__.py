"""Local shell API consumed by the splash/legacy/offline UI"""
