"""Bearer credentials.

Learn: tokens.py is the stateless codec (claims in, signed string out, and
back). dependencies.py turns HTTP headers into bearer strings and hands
them to the session service.
"""
