"""Gmail API adapter: payload parsing, mail source, candidate fetcher"""
