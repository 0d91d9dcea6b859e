"""
Plotly figures for link graphs
"""
