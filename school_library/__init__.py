"""
Motor de circulação da biblioteca escolar.
"""
