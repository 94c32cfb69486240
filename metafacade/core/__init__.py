"""
Entity facade core: storage, filters, resolution, import and lifecycle.
"""
