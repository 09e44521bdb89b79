"""
Analysis pipeline package.

Collector -> heuristic preprocessor -> prompt formatter -> model client
-> response parser -> merger -> store (-> escalation engine).
"""
