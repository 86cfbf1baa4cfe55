"""Thread Wrangler Server

Hosts the wrangler command endpoint next to the core routes:
- Health and configuration endpoints
- Plugin/app system (the wrangler app lives under /apps/wrangler)
"""
