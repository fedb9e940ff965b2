"""
Pure domain core: tokenizer, grammar, resolver, pricing.

Nothing in this package performs I/O except through the lookup ports
passed into the resolver.
"""
