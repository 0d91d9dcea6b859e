"""
Command-line entry point for link analysis of tables, RIF reports and case documents
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from linkanalysis.core.exceptions import LinkAnalysisError
from linkanalysis.core.graph import export_to_json, top_nodes
from linkanalysis.core.models import LinkGraph, ProcessingConfig, UploadedFile
from linkanalysis.core.report_models import TransactionKind
from linkanalysis.core.storage import DAY, TTLCache
from linkanalysis.pipeline.link_pipeline import LinkAnalysisPipeline
from linkanalysis.processors.coercion import decode_text
from linkanalysis.processors.geolocation import GeoLocationService
from linkanalysis.processors.report_formatting import format_brl, format_date
from linkanalysis.processors.rif_spreadsheet_parser import RifSpreadsheetParser
from linkanalysis.processors.rif_text_parser import RifTextParser


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO",
               format="{time:HH:mm:ss} | {level} | {message}")


def _print_graph_summary(graph: LinkGraph) -> None:
    metadata = graph.metadata
    print(f"Entidades: {metadata.total_nodes}")
    print(f"Vínculos: {metadata.total_edges}")
    print(f"Tipos de entidade: {', '.join(metadata.node_types) or '-'}")
    print(f"Tipos de vínculo: {', '.join(metadata.edge_types) or '-'}")
    print(f"Densidade: {metadata.density:.4f}")
    print(f"Grau médio: {metadata.average_degree:.2f}")
    central = top_nodes(graph, 5)
    if central:
        print("Entidades centrais:")
        for node in central:
            print(f"  {node.label} ({node.type.value}) - grau {node.degree}")


def cmd_analyze(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    file = UploadedFile.from_path(args.file)
    if args.source or args.target:
        if not (args.source and args.target):
            logger.error("--source and --target must be given together")
            return 2
        table = pipeline.parse(file)
        graph = pipeline.generate_custom_graph(table, args.source, args.target, args.relationship, args.weight)
    else:
        result = pipeline.analyze_file(file)
        mapping = result.mapping
        print(f"Origem: {mapping.source_column} | Destino: {mapping.target_column} | "
              f"Relacionamento: {mapping.relationship_column or '-'} | Peso: {mapping.weight_column or '-'}")
        graph = result.graph

    _print_graph_summary(graph)

    if args.export:
        export_to_json(graph, args.export)
        print(f"Grafo exportado para {args.export}")
    if args.html:
        from linkanalysis.visualization.graph_figure import create_graph_figure
        create_graph_figure(graph, highlight=args.highlight).write_html(args.html)
        print(f"Visualização salva em {args.html}")
    if args.narrative:
        narrative = pipeline.narrate(graph)
        print()
        print(narrative.text)
    return 0


def cmd_rif_sheet(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    report, graph = pipeline.analyze_rif_spreadsheet(UploadedFile.from_path(args.file))
    print(RifSpreadsheetParser.generate_report(report))
    print()
    _print_graph_summary(graph)
    if args.export:
        export_to_json(graph, args.export)
        print(f"Grafo exportado para {args.export}")
    return 0


def cmd_rif_text(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    text = decode_text(Path(args.file).read_bytes())
    report, graph = pipeline.analyze_rif_text(text)
    print(RifTextParser.generate_report(report))
    print()
    _print_graph_summary(graph)
    if args.json:
        print(json.dumps(report.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def cmd_transactions(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    rows, validation = pipeline.analyze_transactions(UploadedFile.from_path(args.file))
    for row in rows:
        document = f" ({row.counterparty_document})" if row.counterparty_document else ""
        print(f"{format_date(row.date)} | {row.type.value} | {format_brl(row.amount)} | {row.counterparty}{document}")

    credits = sum(row.amount for row in rows if row.type == TransactionKind.CREDIT)
    debits = sum(row.amount for row in rows if row.type == TransactionKind.DEBIT)
    print(f"Transações: {len(rows)}")
    print(f"Créditos: {format_brl(credits)}")
    print(f"Débitos: {format_brl(debits)}")
    for error in validation.errors:
        print(f"Aviso: {error}")
    return 0


def cmd_extract_text(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    document = pipeline.extract_document_text(UploadedFile.from_path(args.file))
    if document.is_fallback:
        logger.warning(f"Could not extract text from {args.file}; printing placeholder document")
    print(document.text)
    return 0


def cmd_geolocate(args: argparse.Namespace, pipeline: LinkAnalysisPipeline) -> int:
    service = GeoLocationService(cache=TTLCache(pipeline.store, default_ttl=DAY))
    missing = 0
    for ip in args.ips:
        location = service.lookup(ip)
        if location is None:
            print(f"{ip}: localização indisponível")
            missing += 1
            continue
        print(f"{location.ip}: {location.city}, {location.region}, {location.country} "
              f"({location.latitude}, {location.longitude}) - {location.isp or '-'} [{location.provider}]")
    return 1 if missing == len(args.ips) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linkanalysis",
                                     description="Link analysis for investigative tables and RIF reports")
    parser.add_argument("--verbose", action="store_true", help="Debug logging, including per-row skip reasons")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Build a link graph from a CSV, Excel, JSON or TXT table")
    analyze.add_argument("file", help="Table to analyze")
    analyze.add_argument("--source", help="Source column (skips auto-detection)")
    analyze.add_argument("--target", help="Target column (skips auto-detection)")
    analyze.add_argument("--relationship", help="Relationship column")
    analyze.add_argument("--weight", help="Weight column")
    analyze.add_argument("--export", help="Write the graph as JSON to this path")
    analyze.add_argument("--html", help="Write an interactive plotly visualization to this path")
    analyze.add_argument("--highlight", help="Highlight nodes whose label contains this term")
    analyze.add_argument("--narrative", action="store_true", help="Print an investigative narrative")
    analyze.set_defaults(handler=cmd_analyze)

    rif_sheet = subparsers.add_parser("rif-sheet", help="Analyze a RIF spreadsheet")
    rif_sheet.add_argument("file", help="RIF Excel export")
    rif_sheet.add_argument("--export", help="Write the graph as JSON to this path")
    rif_sheet.set_defaults(handler=cmd_rif_sheet)

    rif_text = subparsers.add_parser("rif-text", help="Analyze a pasted RIF communication")
    rif_text.add_argument("file", help="Text file with the RIF communication")
    rif_text.add_argument("--json", action="store_true", help="Also print the structured report as JSON")
    rif_text.set_defaults(handler=cmd_rif_text)

    extract = subparsers.add_parser("extract-text", help="Extract plain text from a PDF, DOCX, HTML or TXT document")
    extract.add_argument("file", help="Document to extract")
    extract.set_defaults(handler=cmd_extract_text)

    transactions = subparsers.add_parser("transactions", help="Normalize a RIF transaction export (TXT, CSV or Excel)")
    transactions.add_argument("file", help="Transaction export")
    transactions.set_defaults(handler=cmd_transactions)

    geolocate = subparsers.add_parser("geolocate", help="Approximate location of one or more IP addresses")
    geolocate.add_argument("ips", nargs="+", help="IP addresses to look up")
    geolocate.set_defaults(handler=cmd_geolocate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    pipeline = LinkAnalysisPipeline(ProcessingConfig(verbose=args.verbose))
    try:
        return args.handler(args, pipeline)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename}")
        return 1
    except LinkAnalysisError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
