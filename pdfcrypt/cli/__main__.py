from pdfcrypt.cli import launch

launch()
