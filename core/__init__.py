"""
Core of the context sync pipeline: canonical models, strategy and deployer
interfaces, registry, builder, feature mapping and conversion.
"""
