"""
Control channel: capture session control and statistics publishing.
"""
