"""Provider clients and PIF importers/exporters."""
