"""
Firmador de XML para documentos electrónicos SIFEN
"""
