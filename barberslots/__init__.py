"""
barberslots - appointment availability for a barbershop booking system.
"""

__version__ = "0.1.0"
