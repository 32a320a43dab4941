"""
Page storage service: repository, bus dispatcher and typed bus client.
"""
