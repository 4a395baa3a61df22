# Routes package init
"""
minimux: Built-in Routes
========================

Each module exposes `register(app)` mounting its handlers on an App.
"""
