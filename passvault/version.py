"""PassVault Meta information.
   PassVault keeps named credentials in a single file sealed with a master secret.
"""
__title__ = 'passvault'
__description__ = (
   'PassVault keeps named credentials in a single local file '
   'sealed with AES-256-GCM under an Argon2id-derived key.'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
