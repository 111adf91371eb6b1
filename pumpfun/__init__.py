"""
Pump.fun protocol layer: program constants, instruction decoding, the
bonding curve model and the Solana RPC transaction source.
"""
