"""Infrastructure services: media host, image processing, PDFs, job queue"""
