#!/usr/bin/env python3
"""
Export puzzle play statistics to CSV and optionally render the completion trend graph.
"""

import sys
import argparse

from wordgroups.errors import StoreError
from wordgroups.monitoring import setup_logging
from wordgroups.reports import export_puzzle_stats, generate_completion_graph
from wordgroups.session_manager import SessionManager


def parse_args():
    parser = argparse.ArgumentParser(description='Export word group puzzle statistics')
    parser.add_argument('--output', default='game_data/reports/puzzle_stats.csv',
                      help='CSV file to write')
    parser.add_argument('--graphs', action='store_true',
                      help='Also render the completed-games trend graph')
    parser.add_argument('--graph-dir', default='game_data/graphs',
                      help='Directory for rendered graphs')
    return parser.parse_args()


def main():
    args = parse_args()
    setup_logging()
    try:
        manager = SessionManager()
        path = export_puzzle_stats(args.output, manager)
        print(f"Wrote {path}")
        if args.graphs:
            graphs = generate_completion_graph(manager, args.graph_dir)
            print(f"Completion trend: {graphs['completion_trend'] or 'no finished games yet'}")
    except StoreError as e:
        print(f"Error reading game data: {e.message}")
        sys.exit(1)


if __name__ == '__main__':
    main()
