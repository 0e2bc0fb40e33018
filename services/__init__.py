"""
External services used by the editor.
"""
