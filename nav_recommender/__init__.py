"""
导航推荐：协同过滤 + 内容相似度的混合导航建议打分
"""

__version__ = '1.0.0'
