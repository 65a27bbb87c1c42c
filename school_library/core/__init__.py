"""
Configuração, segurança, cache e erros de domínio.
"""
