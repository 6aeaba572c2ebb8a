"""
Vision model access: provider registry, prompts, reply parsing and the gateway.
"""
from .gateway import ProviderGateway
from .results import AnalysisRequest, CodeAnalysisResult, GeneralAnalysisResult

__all__ = ['ProviderGateway', 'AnalysisRequest', 'CodeAnalysisResult', 'GeneralAnalysisResult']
