"""Share Vanish Meta information.
   Share Vanish stores client-encrypted documents behind short access codes
   and lets them expire after a fixed window.
"""
__title__ = 'share_vanish'
__description__ = (
   'Ephemeral encrypted content exchange: short access codes, '
   'client-side encryption and self-expiring storage.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 Share Vanish Authors'
__author__ = 'Share Vanish Authors'
__license__ = 'Apache-2.0'
