"""Metadata Vault Meta information.
   Metadata Vault stores signed, encrypted shares on a key-addressed
   metadata service.
"""
__title__ = 'metadata_vault'
__description__ = (
   'Signed-envelope client for storing encrypted shares '
   'on a key-addressed metadata store.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/metadata-vault'
