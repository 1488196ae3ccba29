"""
End-to-end scenarios driving runs across several invocations.
"""
