import csv

from django.http import HttpResponse


def csv_response(filename, header, rows):
    """CSV download with a UTF-8 BOM so spreadsheet apps read Vietnamese text correctly"""
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    response.write('﻿')
    writer = csv.writer(response)
    writer.writerow(header)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])
    return response
