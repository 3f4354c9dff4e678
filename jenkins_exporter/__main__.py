from jenkins_exporter.exporter import main

main()
