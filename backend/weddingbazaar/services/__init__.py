from ..utils.immutability import register_immutability_guards

register_immutability_guards()
