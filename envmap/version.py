"""envmap Meta information.
   envmap maps secrets from interchangeable providers into process environments.
"""
__title__ = 'envmap'
__description__ = (
   'envmap maps secrets from interchangeable providers '
   'into process environments.'
)
__version__ = '0.4.0'
__copyright__ = 'Copyright (c) 2024 envmap contributors'
__author__ = 'envmap contributors'
__license__ = 'Apache-2.0'
