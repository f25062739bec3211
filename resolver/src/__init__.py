"""Weather resolver service.

Downstream hop of the postal code weather chain: resolves a postal code to a
city and returns its current temperature in Celsius, Fahrenheit and Kelvin.
"""

__version__ = "1.0.0"
